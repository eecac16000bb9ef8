import logging

from mockable.api.main import app
from mockable.core.config import load_settings

if __name__ == "__main__":
    import os
    import uvicorn
    logging.basicConfig(level=load_settings().log_level)
    host = os.getenv("MOCKABLE_HOST", "127.0.0.1")
    port = int(os.getenv("MOCKABLE_PORT", "8001"))
    uvicorn.run(app, host=host, port=port)
