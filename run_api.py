#!/usr/bin/env python3
"""
Caravan Ops API - Main Launcher
Validates configuration and serves the FastAPI app with uvicorn
"""
import sys
from pathlib import Path

# Get project root directory
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT / 'src'))


def main():
    """Main entry point"""
    try:
        # Import after path is set
        import uvicorn
        from config import validate_config
        import config
        from utils.logger import get_logger
        from api.main import create_app

        print("\n" + "="*80)
        print("CARAVAN OPS API")
        print("="*80)
        print(f"Project Root: {PROJECT_ROOT}")
        print("="*80 + "\n")

        # Validate configuration
        validate_config()
        print("[OK] Configuration validated")

        logger = get_logger(log_level=config.LOG_LEVEL)
        logger.info(
            f"REST API starting on http://{config.API_HOST}:{config.API_PORT} (Swagger: /docs)",
            component="Main",
        )

        uvicorn.run(
            create_app(),
            host=config.API_HOST,
            port=config.API_PORT,
            log_level=config.LOG_LEVEL.lower(),
        )

    except Exception as e:
        print(f"\n[FAIL] Failed to start API: {str(e)}")
        if 'logger' in locals():
            logger.critical(f"API startup failed: {str(e)}", component="Main", exc_info=True)
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n\nAPI stopped by user")
        sys.exit(0)
