#!/usr/bin/env python3
"""lamp-setup: One-shot provisioning for a DNS, web, database and file-sharing server."""

from lampsetup.cli import main

if __name__ == "__main__":
    main()
