import asyncio
import logging

from trafficaz.assistant import run_local
from trafficaz.config import load_config


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print("Listening for wake word… (Ctrl+C to exit)")
    try:
        asyncio.run(run_local(load_config()))
    except KeyboardInterrupt:
        print("\nInterrupted by user – exiting.")


if __name__ == "__main__":
    main()
