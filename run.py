#!/usr/bin/env python3
"""
A simple script to run the bill scanner API.
"""

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

if __name__ == "__main__":
    from app import create_app
    from config.scan_config import ScanConfig

    config = ScanConfig()
    app = create_app(config)

    print(f"Starting bill scanner on http://localhost:{config.port}")
    print("Press Ctrl+C to stop the server")

    app.run(debug=config.debug, port=config.port, host='0.0.0.0')
