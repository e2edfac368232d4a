# ResQWave — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.terminal import Terminal                 # noqa
from app.models.focal_person import FocalPerson          # noqa
from app.models.neighborhood import Neighborhood         # noqa
from app.models.dispatcher import Dispatcher             # noqa
from app.models.alert import Alert                       # noqa
from app.models.rescue_form import RescueForm            # noqa
from app.models.post_rescue_form import PostRescueForm   # noqa
