from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Importa os modelos para que sejam registrados com a Base
from app.models import user  # noqa: E402,F401
from app.models import (  # noqa: E402,F401
    permission,
    user_permission,
    user_group,
    user_group_member,
    api_access_log,
    error_log
)
