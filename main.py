"""
Entry point to run the case tracker worker.
"""
import asyncio
import sys

from worker.main import main as worker_main


if __name__ == "__main__":
    sys.exit(asyncio.run(worker_main()))
