"""Command line interface for classpoint-gateway."""
import argparse
import sys

from config import load_settings
from gateway.cookies import cookie_scope
from gateway.hosts import classify_host


def _mask(value: str) -> str:
    if not value:
        return "(not set)"
    if len(value) <= 4:
        return "****"
    return f"{value[:2]}****{value[-2:]}"


# ============== Commands ==============

def cmd_start():
    """Run the gateway with uvicorn."""
    import uvicorn
    from main import load_environment

    load_environment()
    settings = load_settings()
    if not settings.is_valid():
        print("[X] COGNITO_CLIENT_ID is not set; login endpoints will return 500.")

    print(f"Starting ClassPoint Gateway on {settings.host}:{settings.port}")
    print(f"  Root domain: {settings.root_domain}")
    print(f"  HQ host:     {settings.hq_host}")
    uvicorn.run(
        "main:build_default_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level="warning",
    )


def cmd_status():
    """Show the resolved configuration, secrets masked."""
    from main import load_environment

    load_environment()
    settings = load_settings()

    print("\n--- ClassPoint Gateway Status ---\n")
    print(f"  Root domain:    {settings.root_domain}")
    print(f"  HQ host:        {settings.hq_host}")
    print(f"  Hosted UI:      {settings.cognito_domain}")
    print(f"  Region:         {settings.region}")
    print(f"  Client ID:      {settings.client_id or '(not set)'}")
    print(f"  Client secret:  {_mask(settings.client_secret)}")
    print(f"  Issuer:         {settings.issuer or '(not set)'}")
    print(f"  IdP timeout:    {settings.idp_timeout}s")
    print(f"  JWKS cache TTL: {settings.jwks_cache_ttl}s")
    print()

    missing = settings.missing()
    if missing:
        for name in missing:
            print(f"  [X] Missing: {name}")
        print()
        return 1

    print("  [OK] Configuration complete\n")
    return 0


def cmd_classify(host: str):
    """Print how a host header value is classified."""
    from main import load_environment

    load_environment()
    settings = load_settings()
    classified = classify_host(host, settings.root_domain)
    scope = cookie_scope(classified, settings.root_domain)

    print(f"  Host:          {classified.host or '(empty)'}")
    print(f"  Kind:          {classified.kind.value}")
    print(f"  Tenant slug:   {classified.slug or '-'}")
    print(f"  Cookie domain: {scope.domain or '(host-only)'}")
    print(f"  Secure:        {scope.secure}")
    return 0


def cmd_version():
    from main import VERSION
    print(f"classpoint-gateway {VERSION}")
    return 0


def cmd_help():
    print("""
ClassPoint Gateway - authentication and host routing

Commands:
  start            Run the gateway (default)
  status           Show configuration and report missing keys
  classify HOST    Show how a host is classified and its cookie scope
  version          Show version
  help             Show this help

Configuration is read from the environment and from .env in the
working directory (COGNITO_CLIENT_ID, COGNITO_USER_POOL_ID, ROOT_DOMAIN, ...).
""")
    return 0


# ============== Main Entry Point ==============

def main(argv=None):
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        prog="classpoint-gateway",
        description="ClassPoint Gateway - authentication and host routing",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="start",
        choices=["start", "status", "classify", "version", "help"],
        help="Command to run (default: start)"
    )
    parser.add_argument("host", nargs="?", default="", help="Host for the classify command")

    args = parser.parse_args(argv)

    if args.command == "start":
        cmd_start()
        return 0
    elif args.command == "status":
        return cmd_status()
    elif args.command == "classify":
        return cmd_classify(args.host)
    elif args.command == "version":
        return cmd_version()
    elif args.command == "help":
        return cmd_help()
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
