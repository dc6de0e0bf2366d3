"""Allow running as ``python -m teams_mcp``."""

from teams_mcp.cli.main import main


if __name__ == "__main__":
    main()
