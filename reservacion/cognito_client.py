"""
Cognito User Pool client.
Handles sign-up, password login, password changes and account removal.
Roles are not kept in Cognito; they live on the ``Users`` profile record.
"""
import logging
from typing import Dict, Optional

import boto3
from botocore.exceptions import ClientError

from . import config
from .errors import AuthenticationRequired, ReservacionError, ValidationError

logger = logging.getLogger(__name__)


class CognitoClient:
    """Client for managing users in a Cognito User Pool."""

    def __init__(self, region: str, user_pool_id: str, app_client_id: str, client=None):
        self.region = region
        self.user_pool_id = user_pool_id
        self.app_client_id = app_client_id
        self.client = client or boto3.client('cognito-idp', region_name=region)

    def create_user(self, email: str, username: str, password: str) -> Dict:
        """
        Create a confirmed user with a permanent password.

        Args:
            email: User email, also the Cognito username
            username: Display name
            password: User password

        Returns:
            Dict with uid (the Cognito ``sub``), email and username
        """
        email = email.lower()
        try:
            response = self.client.admin_create_user(
                UserPoolId=self.user_pool_id,
                Username=email,
                UserAttributes=[
                    {'Name': 'email', 'Value': email},
                    {'Name': 'email_verified', 'Value': 'true'},
                    {'Name': 'preferred_username', 'Value': username},
                ],
                TemporaryPassword=password,
                MessageAction='SUPPRESS',  # Suppress welcome email
            )
            self.client.admin_set_user_password(
                UserPoolId=self.user_pool_id,
                Username=email,
                Password=password,
                Permanent=True
            )
        except ClientError as e:
            error_code = e.response['Error']['Code']
            if error_code == 'UsernameExistsException':
                raise ValidationError("Email already exists")
            if error_code == 'InvalidPasswordException':
                raise ValidationError(f"Password does not meet requirements: {e.response['Error']['Message']}")
            logger.exception("Cognito admin_create_user failed")
            raise ReservacionError(f"Failed to create user: {e.response['Error']['Message']}")

        attributes = {a['Name']: a['Value'] for a in response['User'].get('Attributes', [])}
        return {
            'uid': attributes.get('sub', response['User']['Username']),
            'email': email,
            'username': username,
        }

    def authenticate_user(self, email: str, password: str) -> Dict:
        """Password login; returns the ID token (for API calls) and the access token."""
        try:
            response = self.client.admin_initiate_auth(
                UserPoolId=self.user_pool_id,
                ClientId=self.app_client_id,
                AuthFlow='ADMIN_NO_SRP_AUTH',
                AuthParameters={
                    'USERNAME': email.lower(),
                    'PASSWORD': password,
                }
            )
        except ClientError as e:
            error_code = e.response['Error']['Code']
            if error_code in ('NotAuthorizedException', 'UserNotFoundException'):
                raise AuthenticationRequired("Invalid credentials")
            if error_code == 'PasswordResetRequiredException':
                raise AuthenticationRequired("Password reset required")
            logger.exception("Cognito admin_initiate_auth failed")
            raise ReservacionError(f"Authentication failed: {e.response['Error']['Message']}")

        if response.get('ChallengeName') == 'NEW_PASSWORD_REQUIRED':
            raise AuthenticationRequired("New password required")

        auth_result = response.get('AuthenticationResult', {})
        if not auth_result.get('IdToken'):
            raise AuthenticationRequired("Authentication failed: No token returned")

        return {
            'token': auth_result['IdToken'],
            'access_token': auth_result.get('AccessToken'),
            'expires_in': auth_result.get('ExpiresIn'),
        }

    def set_password(self, email: str, password: str) -> None:
        try:
            self.client.admin_set_user_password(
                UserPoolId=self.user_pool_id,
                Username=email,
                Password=password,
                Permanent=True
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'InvalidPasswordException':
                raise ValidationError(f"Password does not meet requirements: {e.response['Error']['Message']}")
            logger.exception("Cognito admin_set_user_password failed")
            raise ReservacionError(f"Failed to update password: {e.response['Error']['Message']}")

    def delete_user(self, email: str) -> bool:
        try:
            self.client.admin_delete_user(
                UserPoolId=self.user_pool_id,
                Username=email
            )
            return True
        except ClientError as e:
            if e.response['Error']['Code'] == 'UserNotFoundException':
                return False
            logger.exception("Cognito admin_delete_user failed")
            raise ReservacionError(f"Failed to delete account: {e.response['Error']['Message']}")


def build_cognito_client() -> Optional[CognitoClient]:
    """
    Build CognitoClient from environment variables.

    Returns:
        CognitoClient instance or None if not configured
    """
    if not (config.COGNITO_REGION and config.COGNITO_USER_POOL_ID and config.COGNITO_APP_CLIENT_ID):
        return None
    return CognitoClient(config.COGNITO_REGION, config.COGNITO_USER_POOL_ID, config.COGNITO_APP_CLIENT_ID)
