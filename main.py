from app.api.payments.payments import payments_bp
from app.api.booking.bookings import bookings_bp
from app.api.customer.favorites import favorites_bp
from app.api.salons.reviews import reviews_bp
from app.api.salons.review_reports import reports_bp
from app.api.salons.business_hours import business_hours_bp
from app.api.salons.analytics import analytics_bp
from app.routes.services import services_bp
from app.routes.salons import salons_bp
from flask import Flask
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix
from dotenv import load_dotenv
from flasgger import Swagger
from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE
import os

load_dotenv()
from app.config import Config  # noqa: E402
from app.extensions import db  # noqa: E402
from app.errors import register_error_handlers  # noqa: E402
from app.rate_limiter import init_rate_limiter  # noqa: E402
from app.scheduler import init_scheduler  # noqa: E402


def create_app(config_overrides=None):
    print("Starting create_app()")
    app = Flask(__name__)
    try:
        print("Loading config...")
        app.config.from_object(Config)
        if config_overrides:
            app.config.update(config_overrides)
        app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
        print(f"Config loaded: {len(app.config)} items")

        hops = app.config.get("TRUST_PROXY_HOPS", 0)
        if hops:
            print(f"Trusting {hops} proxy hop(s) for client addresses")
            app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops)

        print("Initializing CORS...")
        CORS(app)

        print("Initializing database...")
        db.init_app(app)

        print("Registering error handlers and rate limiter...")
        register_error_handlers(app)
        init_rate_limiter(app)

        print("Initializing Swagger/OpenAPI documentation...")
        host = os.environ.get("API_HOST", "127.0.0.1:5000")
        swagger_template = SWAGGER_TEMPLATE.copy()
        swagger_template["host"] = host

        Swagger(app, config=SWAGGER_CONFIG, template=swagger_template)
        print("Swagger initialized - Access at /api/docs")
        print("Registering blueprints...")

        blueprints = [
            salons_bp,
            services_bp,
            business_hours_bp,
            bookings_bp,
            payments_bp,
            favorites_bp,
            reviews_bp,
            reports_bp,
            analytics_bp,
        ]

        for bp in blueprints:
            app.register_blueprint(bp)
            print(f"  ✓ {bp.name} registered")

        @app.route("/")
        def home():
            """
            Root endpoint - API status
            ---
            tags:
              - Utility
            responses:
              200:
                description: API is running
            """
            return {
                "success": True,
                "message": "SalonTime API is running",
                "docs_url": "/api/docs",
            }, 200

        @app.route("/health")
        def health():
            """
            Health check
            ---
            tags:
              - Utility
            responses:
              200:
                description: Service is up
            """
            return {
                "status": "OK",
                "environment": os.environ.get("FLASK_ENV", "production"),
            }, 200

        if app.config.get("SCHEDULER_ENABLED"):
            print("Starting scheduler...")
            init_scheduler(app)

        route_count = len(list(app.url_map.iter_rules()))
        print(f"Total routes registered: {route_count}")

    except Exception as e:
        print(f"Error during app creation: {e}")
        import traceback

        print(f"Full traceback: {traceback.format_exc()}")
        raise

    print("create_app() completed successfully")
    return app


app = create_app()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    app.run(
        host="0.0.0.0", port=port, debug=os.environ.get("FLASK_ENV") != "production"
    )
