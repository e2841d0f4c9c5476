from . import crud_event
from . import crud_oauth_token
from . import crud_sync_state
