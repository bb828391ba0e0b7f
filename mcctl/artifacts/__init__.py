"""Artifact acquisition — resolve, download and verify server builds.

- resolver: map a (channel, version) pair to a concrete ArtifactDescriptor
- download: stream the artifact to disk and verify it when a digest exists
- digest: streaming SHA-256 verification
- installer: the resolver → pipeline flow behind `POST /install`
"""
