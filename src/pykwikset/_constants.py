"""Internal constants shared across the library."""

API_HOST = "ynk95r1v52.execute-api.us-east-1.amazonaws.com"
API_BASE_URL = f"https://{API_HOST}/prod_v1"
USER_AGENT = "pykwikset/0.1"

COGNITO_AWS_REGION = "us-east-1"
COGNITO_USER_POOL_ID = "us-east-1_6B3uo6uKN"
COGNITO_USER_POOL_CLIENT = "5eu1cdkjp1itd1fi7b91m6g79s"

CUSTOM_CHALLENGE = "CUSTOM_CHALLENGE"
PASSWORD_VERIFIER = "PASSWORD_VERIFIER"

#: Answer that asks the custom auth lambda to text a one-time code.
GENERATE_CODE_ANSWER = "answerType:generateCode,medium:phone,codeType:login"


def verify_code_answer(code: str) -> str:
    """Build the custom challenge answer that submits a one-time code."""
    return f"answerType:verifyCode,medium:phone,codeType:login,code:{code}"


# ------------------------------------------------------------------
# Timings (seconds)
# ------------------------------------------------------------------

REFRESH_INTERVAL = 10 * 60
POLL_INTERVAL = 30
CHALLENGE_GRACE_PERIOD = 7

# ------------------------------------------------------------------
# Battery thresholds (percent)
# ------------------------------------------------------------------

LOW_BATTERY_LEVEL = 40
REPLACE_BATTERY_LEVEL = 10

MFA_PORT_MIN = 1024
MFA_PORT_MAX = 65535
