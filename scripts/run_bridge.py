import asyncio, argparse, logging
from clockwatch.bridge import run

def main():
    ap = argparse.ArgumentParser(description="Balance wheel recorder bridge")
    ap.add_argument("--config", required=True)
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(run(args.config))

if __name__ == "__main__":
    main()
