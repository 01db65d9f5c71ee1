import os
import sys
import argparse
from pathlib import Path
from dotenv import load_dotenv
import uvicorn

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

# .env must be loaded before bmc_exporter.config is imported
load_dotenv()


def _get_default_workers() -> int:
    value = os.getenv("UVICORN_WORKERS", "1")
    try:
        return max(int(value), 1)
    except ValueError:
        print(f"UVICORN_WORKERS value '{value}' is not an integer, using 1")
        return 1


def main():
    """Run the exporter."""
    from bmc_exporter.config import settings

    parser = argparse.ArgumentParser(
        description="BMC Redfish Exporter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # listen on all interfaces on the default port
  python run.py --host 0.0.0.0

  # development mode
  python run.py --reload

Prometheus scrape URL:
  http://localhost:9533/scrape?target=<bmc>&model=<model>
        """
    )

    parser.add_argument("--host", default="127.0.0.1", help="Address to bind (default: 127.0.0.1)")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.EXPORTER_PORT,
        help=f"Port to bind (default: EXPORTER_PORT or {settings.EXPORTER_PORT})"
    )
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    parser.add_argument(
        "--workers",
        type=int,
        default=_get_default_workers(),
        help="Uvicorn worker processes (default: UVICORN_WORKERS or 1)"
    )

    args = parser.parse_args()

    if args.workers < 1:
        args.workers = 1

    if args.reload and args.workers > 1:
        print("reload cannot be combined with multiple workers, disabling reload")
        args.reload = False

    if args.workers > 1:
        print("Warning: every worker keeps its own ignored list and credential cache")

    print(f"BMC Redfish Exporter listening on http://{args.host}:{args.port}")
    print(f"  Vault: {settings.VAULT_ADDRESS or 'not configured'}")
    print(f"  Workers: {args.workers}")

    try:
        uvicorn.run(
            "bmc_exporter.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=args.workers
        )
    except KeyboardInterrupt:
        print("\nShutting down")


if __name__ == "__main__":
    main()
