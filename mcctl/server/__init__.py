"""Server process control — one supervised Minecraft server subprocess.

ServerController owns the single ProcessSlot: start, graceful stop, status,
and a background supervisor task that reconciles state on exit.
"""
