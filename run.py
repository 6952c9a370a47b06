#!/usr/bin/env python3
"""
Investment Engine Entry Point

Starts the FastAPI server with the investment engine.
"""

import sys

import uvicorn

from investment_engine.api import create_app
from investment_engine.config import get_config
from investment_engine.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format)

    print("📈 Starting Investment Engine...")
    print("🔒 Audit trail active" if config.enable_audit_logging else "⚠️  Audit trail disabled")
    print("💰 All return calculations use Decimal precision")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        uvicorn.run(create_app(), host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        print("\n👋 Shutting down Investment Engine...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
