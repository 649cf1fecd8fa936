# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from petsoft.models.pet import Pet  # noqa: F401
from petsoft.models.user import User  # noqa: F401
