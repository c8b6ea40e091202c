from mangum import Mangum
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bakery.api import create_app
from bakery.config import Settings

app = create_app(Settings.from_env(), root_path="/api")

handler = Mangum(app, lifespan="auto")
