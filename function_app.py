import azure.functions as func

from src.shared.logging_utils import configure_logging
from src.function_blueprints.http_generate_posts import bp as generate_posts_bp

configure_logging()

# Routes authenticate via App Service Authentication, not function keys
app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)
app.register_functions(generate_posts_bp)
