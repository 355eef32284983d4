import os

os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_REGION"] = "us-east-1"

import json
import time

import boto3
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from moto import mock_aws

import reservacion.app as app_module
from reservacion import config
from reservacion.cognito_auth import CognitoVerifier
from reservacion.cognito_client import CognitoClient
from reservacion.create_tables import create_tables
from reservacion.models import Role, User
from reservacion.storage import ImageStorage
from reservacion.store import ReservationStore

REGION = "us-east-1"
TEST_POOL_ID = "us-east-1_testpool"
TEST_CLIENT_ID = "test-app-client"
TEST_KID = "test-key"

INDEX_HTML = """<!doctype html>
<html>
<head>
<title>Reservaciones</title>
<meta property="og:title" content="Reservaciones" />
<meta property="og:description" content="Create reservations for your favorite events" />
<meta property="og:image" content="https://example.com/logo.png" />
<meta property="twitter:title" content="Reservaciones" />
<meta property="twitter:description" content="Create reservations for your favorite events" />
<meta property="twitter:image" content="https://example.com/logo.png" />
</head>
<body><div id="root"></div></body>
</html>
"""


# -------------------------
# AWS (moto)
# -------------------------
@pytest.fixture
def aws():
    with mock_aws():
        yield


@pytest.fixture
def dynamodb(aws):
    """In-memory DynamoDB with the Events, Reservations and Users tables."""
    resource = boto3.resource("dynamodb", region_name=REGION)
    create_tables(resource)
    return resource


@pytest.fixture
def store(dynamodb):
    return ReservationStore(dynamodb)


@pytest.fixture
def s3(aws):
    client = boto3.client("s3", region_name=REGION)
    client.create_bucket(Bucket=config.IMAGE_BUCKET)
    return client


@pytest.fixture
def image_storage(s3):
    return ImageStorage(bucket=config.IMAGE_BUCKET, region=REGION, s3=s3)


@pytest.fixture
def cognito(aws):
    """Cognito user pool + app client, wrapped in our client."""
    idp = boto3.client("cognito-idp", region_name=REGION)
    pool_id = idp.create_user_pool(PoolName="reservacion")["UserPool"]["Id"]
    client_id = idp.create_user_pool_client(
        UserPoolId=pool_id, ClientName="web"
    )["UserPoolClient"]["ClientId"]
    return CognitoClient(REGION, pool_id, client_id, client=idp)


# -------------------------
# Tokens
# -------------------------
@pytest.fixture(scope="session")
def signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def verifier(signing_key):
    """Verifier whose key cache already holds the test signing key."""
    jwk = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(signing_key.public_key()))
    jwk.update({"kid": TEST_KID, "alg": "RS256", "use": "sig"})
    v = CognitoVerifier(REGION, TEST_POOL_ID, TEST_CLIENT_ID)
    v.load_jwks({"keys": [jwk]})
    return v


@pytest.fixture
def make_token(verifier, signing_key):
    def _make(uid, email="user@example.com", auth_age=0, **extra):
        now = int(time.time())
        claims = {
            "sub": uid,
            "email": email,
            "aud": TEST_CLIENT_ID,
            "iss": verifier.issuer,
            "iat": now,
            "exp": now + 3600,
            "auth_time": now - auth_age,
            "token_use": "id",
        }
        claims.update(extra)
        return jwt.encode(claims, signing_key, algorithm="RS256", headers={"kid": TEST_KID})
    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(user: User, **kwargs):
        return {"Authorization": f"Bearer {make_token(user.uid, user.email, **kwargs)}"}
    return _headers


# -------------------------
# Users
# -------------------------
@pytest.fixture
def admin(store):
    return store.put_user(User.new("admin-uid", "admin@example.com", "Ada", Role.ADMIN))


@pytest.fixture
def promoter(store):
    return store.put_user(User.new("promoter-uid", "pat@example.com", "Pat", Role.PROMOTER))


@pytest.fixture
def other_promoter(store):
    return store.put_user(User.new("other-uid", "olga@example.com", "Olga", Role.PROMOTER))


# -------------------------
# Flask
# -------------------------
@pytest.fixture
def hosting_dir(tmp_path):
    (tmp_path / "index.html").write_text(INDEX_HTML, encoding="utf-8")
    (tmp_path / "static" / "js").mkdir(parents=True)
    (tmp_path / "static" / "js" / "main.js").write_text("console.log('app');", encoding="utf-8")
    return tmp_path


@pytest.fixture
def client(store, image_storage, verifier, hosting_dir, monkeypatch):
    """
    Flask test client with the module-level store, storage and verifier
    swapped for the moto-backed ones.
    """
    monkeypatch.setattr(app_module, "store", store)
    monkeypatch.setattr(app_module, "image_storage", image_storage)
    monkeypatch.setattr(app_module, "cognito_verifier", verifier)
    monkeypatch.setattr(app_module, "cognito_client", None)
    monkeypatch.setattr(config, "PUBLIC_BASE_URL", "https://reservas.example.com")

    app_module.app.config["TESTING"] = True
    app_module.app.config["HOSTING_DIR"] = str(hosting_dir)

    with app_module.app.test_client() as client:
        yield client
