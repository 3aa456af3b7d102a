import os

from aws_cdk import (
    CfnOutput,
    Duration,
    RemovalPolicy,
    Stack,
    aws_apigateway as apigw,
    aws_cognito as cognito,
    aws_dynamodb as ddb,
    aws_lambda as _lambda,
    aws_logs as logs,
)
from constructs import Construct


class SharedBoardsStack(Stack):
    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        stage_name = os.getenv("STAGE", "prod")
        data_retention_mode = os.getenv("DATA_RETENTION_MODE", "destroy").strip().lower()
        if data_retention_mode not in {"destroy", "retain"}:
            raise ValueError(
                "DATA_RETENTION_MODE must be 'destroy' or 'retain' (case-insensitive)"
            )
        # Dev-first default: delete stateful resources on teardown.
        # For production deployments, set DATA_RETENTION_MODE=retain.
        stateful_removal_policy = (
            RemovalPolicy.DESTROY
            if data_retention_mode == "destroy"
            else RemovalPolicy.RETAIN
        )
        schema_version = "2026-10-01"

        # Keep names collision-proof across multiple stacks in the same account+region.
        name_prefix = f"{construct_id}-{stage_name}"

        boards_table = ddb.Table(
            self,
            "Boards",
            partition_key=ddb.Attribute(name="boardId", type=ddb.AttributeType.STRING),
            billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
            point_in_time_recovery=True,
            removal_policy=stateful_removal_policy,
        )
        boards_table.add_global_secondary_index(
            index_name="owner-index",
            partition_key=ddb.Attribute(name="owner", type=ddb.AttributeType.STRING),
            sort_key=ddb.Attribute(name="createdAt", type=ddb.AttributeType.STRING),
            projection_type=ddb.ProjectionType.ALL,
        )

        users_table = ddb.Table(
            self,
            "Users",
            partition_key=ddb.Attribute(name="sub", type=ddb.AttributeType.STRING),
            billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
            point_in_time_recovery=True,
            removal_policy=stateful_removal_policy,
        )
        users_table.add_global_secondary_index(
            index_name="email-index",
            partition_key=ddb.Attribute(name="email", type=ddb.AttributeType.STRING),
            projection_type=ddb.ProjectionType.ALL,
        )

        lambda_env = {
            "BOARDS_TABLE": boards_table.table_name,
            "BOARDS_USERS_TABLE": users_table.table_name,
            "BOARDS_OWNER_INDEX": "owner-index",
            "BOARDS_USERS_EMAIL_INDEX": "email-index",
            "BOARDS_SCHEMA_VERSION": schema_version,
        }

        user_sync_fn = _lambda.Function(
            self,
            "UserSyncHandler",
            runtime=_lambda.Runtime.PYTHON_3_12,
            handler="user_sync_handler.handler",
            code=_lambda.Code.from_asset("lambda"),
            timeout=Duration.seconds(10),
            environment=lambda_env,
        )
        users_table.grant_write_data(user_sync_fn)

        user_pool = cognito.UserPool(
            self,
            "BoardsUserPool",
            user_pool_name=f"{name_prefix}-users",
            self_sign_up_enabled=True,
            sign_in_aliases=cognito.SignInAliases(username=True, email=True),
            sign_in_case_sensitive=False,
            auto_verify=cognito.AutoVerifiedAttrs(email=True),
            standard_attributes=cognito.StandardAttributes(
                email=cognito.StandardAttribute(required=True, mutable=False),
                preferred_username=cognito.StandardAttribute(required=False, mutable=True),
            ),
            password_policy=cognito.PasswordPolicy(
                min_length=12,
                require_digits=True,
                require_lowercase=True,
                require_uppercase=True,
                require_symbols=True,
            ),
            lambda_triggers=cognito.UserPoolTriggers(post_confirmation=user_sync_fn),
            removal_policy=stateful_removal_policy,
        )

        user_pool_client = user_pool.add_client(
            "BoardsUserPoolClient",
            auth_flows=cognito.AuthFlow(user_password=True, user_srp=True),
            generate_secret=False,
            refresh_token_validity=Duration.days(30),
        )

        boards_fn = _lambda.Function(
            self,
            "BoardsHandler",
            runtime=_lambda.Runtime.PYTHON_3_12,
            handler="boards_handler.handler",
            code=_lambda.Code.from_asset("lambda"),
            timeout=Duration.seconds(20),
            environment=lambda_env,
        )
        boards_table.grant_read_write_data(boards_fn)
        users_table.grant_read_data(boards_fn)

        # Created explicitly so retention and removal follow DATA_RETENTION_MODE.
        for fn_id, fn in (("BoardsHandlerLogGroup", boards_fn), ("UserSyncLogGroup", user_sync_fn)):
            logs.LogGroup(
                self,
                fn_id,
                log_group_name=f"/aws/lambda/{fn.function_name}",
                retention=logs.RetentionDays.ONE_WEEK,
                removal_policy=stateful_removal_policy,
            )

        access_log_group = logs.LogGroup(
            self,
            "ApiAccessLogGroup",
            retention=logs.RetentionDays.ONE_WEEK,
            removal_policy=stateful_removal_policy,
        )

        rest_api = apigw.RestApi(
            self,
            "BoardsApi",
            rest_api_name=f"{name_prefix}-api",
            deploy_options=apigw.StageOptions(
                stage_name=stage_name,
                access_log_destination=apigw.LogGroupLogDestination(access_log_group),
                # Standard fields only; do not log headers (e.g., Authorization).
                access_log_format=apigw.AccessLogFormat.json_with_standard_fields(
                    caller=True,
                    http_method=True,
                    ip=True,
                    protocol=True,
                    request_time=True,
                    resource_path=True,
                    response_length=True,
                    status=True,
                    user=True,
                ),
            ),
            default_cors_preflight_options=apigw.CorsOptions(
                allow_origins=apigw.Cors.ALL_ORIGINS,
                allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
                allow_headers=["authorization", "content-type"],
            ),
            # Needed for API Gateway to push logs to CloudWatch Logs.
            cloud_watch_role=True,
        )

        v1 = rest_api.root.add_resource("v1")
        me = v1.add_resource("me")
        boards = v1.add_resource("boards")
        boards_shared = boards.add_resource("shared")
        board = boards.add_resource("{boardId}")
        board_share = board.add_resource("share")
        board_tasks = board.add_resource("tasks")
        board_task = board_tasks.add_resource("{taskId}")

        boards_authorizer = apigw.CognitoUserPoolsAuthorizer(
            self,
            "BoardsCognitoAuthorizer",
            cognito_user_pools=[user_pool],
        )
        boards_integration = apigw.LambdaIntegration(boards_fn)

        routes = [
            (me, "GET"),
            (boards, "GET"),
            (boards, "POST"),
            (boards_shared, "GET"),
            (board, "GET"),
            (board_share, "POST"),
            (board_tasks, "POST"),
            (board_task, "PUT"),
            (board_task, "DELETE"),
        ]
        for resource, method in routes:
            resource.add_method(
                method,
                boards_integration,
                authorization_type=apigw.AuthorizationType.COGNITO,
                authorizer=boards_authorizer,
            )

        CfnOutput(
            self,
            "BoardsInvokeUrl",
            value=f"{rest_api.url}v1",
            description="Invoke URL base for board endpoints.",
        )
        CfnOutput(
            self,
            "UserPoolId",
            value=user_pool.user_pool_id,
        )
        CfnOutput(
            self,
            "UserPoolClientId",
            value=user_pool_client.user_pool_client_id,
            description="App client id for USER_PASSWORD_AUTH logins.",
        )
        CfnOutput(
            self,
            "BoardsTableName",
            value=boards_table.table_name,
        )
        CfnOutput(
            self,
            "UsersTableName",
            value=users_table.table_name,
        )
