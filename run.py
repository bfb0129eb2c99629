"""Run script for the device query service."""

import uvicorn
from device_query.api.main import app
from device_query.config.settings import get_settings

if __name__ == "__main__":
    settings = get_settings()
    
    print("🚀 Starting Device Query Service")
    print(f"📍 Running on http://{settings.api_host}:{settings.api_port}")
    print(f"🔗 Inventory service: {settings.inventory_base_url}")
    
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        reload=False
    )
