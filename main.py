import uvicorn

from cube_waitlist.core.config import settings
from cube_waitlist.main import app

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
