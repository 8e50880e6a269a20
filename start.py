#!/usr/bin/env python3
"""
ClinicDesk backend server starter.
"""

import os
import sys


def main():
    """Start the Uvicorn server"""
    import uvicorn
    
    port = int(os.environ.get("PORT", 8000))
    is_production = os.environ.get("APP_ENV", "development") == "production"
    
    print(f"Starting ClinicDesk backend ({'production' if is_production else 'development'}) on port {port}")
    print(f"Health check: http://0.0.0.0:{port}/health")
    
    try:
        uvicorn.run(
            "clinicdesk.main:app",
            host="0.0.0.0",
            port=port,
            reload=not is_production,
            log_level="info",
            access_log=True
        )
    except KeyboardInterrupt:
        print("Server stopped by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
