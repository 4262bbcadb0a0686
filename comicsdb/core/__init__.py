from comicsdb.core.config import settings
from comicsdb.core.database import get_db, Base, get_db_session
