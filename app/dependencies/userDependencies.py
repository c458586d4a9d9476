from typing import Annotated
from fastapi import Depends
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.models import User

user_dependency = Annotated[User, Depends(AuthDependencies.get_current_user)]
