# module cursoshub.app
from cursoshub.app_setup.factory import create_app

# App globale
app = create_app()
