"""Global constants for the awardswithfriends application."""

# Collection names
USERS_COLLECTION = "users"
CEREMONIES_COLLECTION = "ceremonies"
CATEGORIES_COLLECTION = "categories"
NOMINEES_COLLECTION = "nominees"
COMPETITIONS_COLLECTION = "competitions"
PARTICIPANTS_COLLECTION = "participants"
VOTES_COLLECTION = "votes"
EVENT_TYPES_COLLECTION = "eventTypes"
CONFIG_COLLECTION = "config"
FEATURES_DOCUMENT = "features"

# Field names
FIELD_USER_ID = "odUserId"
FIELD_CEREMONY_YEAR = "ceremonyYear"
FIELD_DISPLAY_ORDER = "displayOrder"
FIELD_DATE = "date"
FIELD_REQUIRES_PAYMENT = "requiresPaymentForCompetitions"

# Callable function names
FN_CREATE_COMPETITION = "createCompetition"
FN_JOIN_COMPETITION = "joinCompetition"
FN_LEAVE_COMPETITION = "leaveCompetition"
FN_DELETE_COMPETITION = "deleteCompetition"
FN_SET_COMPETITION_INACTIVE = "setCompetitionInactive"
FN_CAST_VOTE = "castVote"
FN_CAST_CEREMONY_VOTE = "castCeremonyVote"
FN_UPDATE_FCM_TOKEN = "updateFcmToken"  # nosec B105
FN_DELETE_ACCOUNT = "deleteAccount"

# Competition-related constants
INVITE_CODE_LENGTH = 6
DEFAULT_COMPETITION_NAME = "Competition"
UNKNOWN_EVENT = "Unknown Event"

# Voting-related constants
VOTE_CONFIRMATION_TIMEOUT = 5.0

# Seconds a request waits for a live view to deliver its first state
VIEW_LOAD_TIMEOUT = 5.0

# Seconds a live view may go unused before its listeners are closed
VIEW_IDLE_TIMEOUT = 900.0

# Callable functions
DEFAULT_FUNCTIONS_REGION = "us-central1"
DEFAULT_FUNCTIONS_TIMEOUT = 10.0

# Custom claim carrying the purchased competitions entitlement
COMPETITIONS_ACCESS_CLAIM = "competitionsAccess"
