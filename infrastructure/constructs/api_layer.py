"""
API layer construct: shared Lambda + HTTP API routes.

A single Lambda serves every route; ``handlers.main`` does the dispatch.
Uses Docker bundling for dependencies (runs in CI/CD pipeline).
"""

from typing import Dict, List, Optional

from aws_cdk import (
    BundlingOptions,
    Duration,
    aws_lambda as _lambda,
    aws_apigatewayv2 as apigw,
    aws_apigatewayv2_authorizers as authorizers,
    aws_apigatewayv2_integrations as integrations,
    aws_logs as logs,
)
from constructs import Construct

ROUTES = [
    (apigw.HttpMethod.GET, "/customers"),
    (apigw.HttpMethod.POST, "/customers"),
    (apigw.HttpMethod.GET, "/customers/{id}"),
    (apigw.HttpMethod.PUT, "/customers/{id}"),
    (apigw.HttpMethod.DELETE, "/customers/{id}"),
    (apigw.HttpMethod.POST, "/customers/{id}/connections"),
    (apigw.HttpMethod.DELETE, "/customers/{id}/connections/{connection_id}"),
    (apigw.HttpMethod.GET, "/vc-inventory"),
    (apigw.HttpMethod.POST, "/vc-inventory"),
    (apigw.HttpMethod.POST, "/vc-inventory/bulk"),
    (apigw.HttpMethod.GET, "/vc-inventory/{id}"),
    (apigw.HttpMethod.DELETE, "/vc-inventory/{id}"),
    (apigw.HttpMethod.POST, "/vc-inventory/{id}/status"),
    (apigw.HttpMethod.POST, "/vc-inventory/{id}/reassign"),
    (apigw.HttpMethod.GET, "/requests"),
    (apigw.HttpMethod.POST, "/requests"),
    (apigw.HttpMethod.GET, "/requests/summary"),
    (apigw.HttpMethod.GET, "/requests/{id}"),
    (apigw.HttpMethod.POST, "/requests/{id}/resolve"),
    (apigw.HttpMethod.GET, "/packages"),
    (apigw.HttpMethod.POST, "/packages"),
    (apigw.HttpMethod.GET, "/packages/{id}"),
    (apigw.HttpMethod.PUT, "/packages/{id}"),
    (apigw.HttpMethod.DELETE, "/packages/{id}"),
    (apigw.HttpMethod.GET, "/payments"),
    (apigw.HttpMethod.POST, "/payments"),
    (apigw.HttpMethod.GET, "/payments/summary"),
    (apigw.HttpMethod.GET, "/payments/{id}"),
    (apigw.HttpMethod.GET, "/areas"),
    (apigw.HttpMethod.POST, "/areas"),
    (apigw.HttpMethod.GET, "/areas/{id}"),
    (apigw.HttpMethod.PUT, "/areas/{id}"),
    (apigw.HttpMethod.DELETE, "/areas/{id}"),
]


class ApiLayerConstruct(Construct):
    """Expose the admin console endpoints via HTTP API."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        environment: str,
        table_names: Dict[str, str],
        jwt_issuer: str = "",
        jwt_audience: Optional[List[str]] = None,
        log_level: str = "INFO",
        lambda_memory_mb: int = 512,
        lambda_timeout_seconds: int = 30,
    ) -> None:
        super().__init__(scope, construct_id)

        # AWS-managed Powertools layer (includes pydantic, boto3 extras)
        powertools_layer = _lambda.LayerVersion.from_layer_version_arn(
            self,
            "PowertoolsLayer",
            f"arn:aws:lambda:{scope.region}:017000801446:layer:AWSLambdaPowertoolsPythonV3-python312-x86:7"
        )

        bundled_code = _lambda.Code.from_asset(
            "src",
            bundling=BundlingOptions(
                image=_lambda.Runtime.PYTHON_3_12.bundling_image,
                command=[
                    "bash", "-c",
                    "pip install -r requirements-lambda.txt -t /asset-output && "
                    "cp -r . /asset-output"
                ],
            ),
        )

        self.main_lambda = _lambda.Function(
            self,
            "ApiHandler",
            runtime=_lambda.Runtime.PYTHON_3_12,
            handler="handlers.main.lambda_handler",
            code=bundled_code,
            layers=[powertools_layer],
            memory_size=lambda_memory_mb,
            timeout=Duration.seconds(lambda_timeout_seconds),
            architecture=_lambda.Architecture.X86_64,
            environment={
                "ENVIRONMENT": environment,
                "LOG_LEVEL": log_level,
                **table_names,
            },
            log_retention=logs.RetentionDays.ONE_WEEK,
        )

        self.api = apigw.HttpApi(
            self,
            "HttpApi",
            api_name=f"cabletv-admin-api-{environment}",
            cors_preflight=apigw.CorsPreflightOptions(
                allow_origins=["*"],
                allow_methods=[apigw.CorsHttpMethod.ANY],
                allow_headers=["Authorization", "Content-Type", "If-Match"],
            ),
        )

        integration = integrations.HttpLambdaIntegration(
            "LambdaIntegration", self.main_lambda
        )

        # Health stays public; everything else carries the caller's JWT claims.
        self.api.add_routes(
            path="/health", methods=[apigw.HttpMethod.GET], integration=integration
        )

        authorizer = None
        if jwt_issuer:
            authorizer = authorizers.HttpJwtAuthorizer(
                "JwtAuthorizer",
                jwt_issuer,
                jwt_audience=jwt_audience or [],
            )

        for method, path in ROUTES:
            self.api.add_routes(
                path=path,
                methods=[method],
                integration=integration,
                authorizer=authorizer,
            )
