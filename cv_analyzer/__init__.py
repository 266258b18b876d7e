from flask import Flask
from flasgger import Swagger
from prometheus_flask_exporter import PrometheusMetrics
from flask_cors import CORS

from .logging_setup import setup_logging
from .routes import analysis_routes, health
from .config import DevelopmentConfig, ProductionConfig, TestingConfig


def create_app(config_name: str = "development"):
    app = Flask(__name__)

    config_map = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig,
    }
    app.config.from_object(config_map.get(config_name.lower(), DevelopmentConfig))

    setup_logging(app)

    # CORS_ORIGINS empty or '*' -> any origin; otherwise a comma-separated list
    cors_origin = (app.config.get("CORS_ORIGINS") or "*").strip()
    cors_common_kwargs = dict(
        supports_credentials=False,
        methods=["GET", "POST", "OPTIONS", "HEAD"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            "X-Requested-With",
            "X-Request-ID",
            app.config["OWNER_HEADER"],
            "Accept",
            "Origin",
            "Cache-Control",
        ],
    )
    if cors_origin == "*":
        CORS(app, resources={r"/*": {"origins": "*"}}, **cors_common_kwargs)
    else:
        origins_list = [o.strip() for o in cors_origin.split(",") if o.strip()]
        CORS(app, resources={r"/*": {"origins": origins_list}}, **cors_common_kwargs)

    from .models import init_app as init_models
    init_models(app)

    swagger_template = {
        "swagger": "2.0",
        "info": {
            "title": "CV Analyzer API",
            "description": "Asynchronous CV analysis jobs: enqueue, poll status, read results.",
            "version": "1.0.0",
        },
        "basePath": "/",
        "schemes": ["https", "http"],
    }
    swagger_config = {
        "headers": [],
        "specs": [
            {
                "endpoint": "apispec_1",
                "route": "/apispec_1.json",
                "rule_filter": lambda rule: True,
                "model_filter": lambda tag: True,
            }
        ],
        "static_url_path": "/flasgger_static",
        "swagger_ui": True,
        "specs_route": "/apidocs/",
    }
    Swagger(app, template=swagger_template, config=swagger_config)

    app.register_blueprint(health.bp)
    app.register_blueprint(analysis_routes.bp, url_prefix="/api/analysis")

    if app.config.get("METRICS_ENABLED", True):
        metrics = PrometheusMetrics(app, path="/metrics")
        metrics.info("app_info", "CV Analyzer service", version="1.0.0")

    return app
