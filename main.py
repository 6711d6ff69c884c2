import argparse
import logging
import os
import sys
from pathlib import Path

# Set up the script directory and ensure it's in sys.path
script_directory = Path(__file__).resolve().parent
if str(script_directory) not in sys.path:
    sys.path.append(str(script_directory))

import uvicorn
from dotenv import load_dotenv

from mediaflow.secrets import env_file_path, setup_secrets


def _parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Serve the MediaFlow upload review app.")
    ap.add_argument("--port", type=int, default=8086)
    ap.add_argument("--host", type=str, default="0.0.0.0")
    ap.add_argument("--env", type=str, default="dev")
    ap.add_argument("--log-level", type=str, default="info")
    return ap.parse_args(argv)


def _ensure_cert_bundle() -> None:
    # The Cloud SQL connector needs a TLS trust store.
    if os.getenv("SSL_CERT_FILE") and os.path.exists(os.getenv("SSL_CERT_FILE", "")):
        return
    import certifi

    cert_path = certifi.where()
    os.environ.setdefault("SSL_CERT_FILE", cert_path)
    os.environ.setdefault("REQUESTS_CA_BUNDLE", cert_path)


def main(argv=None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # If secrets are delivered via environment variables (Cloud Run), materialize them.
    if os.getenv("ENV_FILE") or os.getenv("SERVICE_ACCOUNT_KEY"):
        setup_secrets(args.env)

    env_path = env_file_path(args.env)
    if env_path.exists():
        load_dotenv(env_path, override=True)
    else:
        raise FileNotFoundError(f"Could not find an environment file for '{args.env}' at {env_path}.")

    _ensure_cert_bundle()

    # Imported last: modules read their settings from the environment at import time.
    from app import app

    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
