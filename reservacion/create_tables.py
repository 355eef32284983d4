import logging

import boto3

from . import config

logger = logging.getLogger(__name__)


TABLES = {
    config.EVENTS_TABLE: {
        "KeySchema": [
            {"AttributeName": "event_id", "KeyType": "HASH"},  # Partition key
        ],
        "AttributeDefinitions": [
            {"AttributeName": "event_id", "AttributeType": "S"},
        ],
    },
    config.RESERVATIONS_TABLE: {
        "KeySchema": [
            {"AttributeName": "event_id", "KeyType": "HASH"},
            {"AttributeName": "reservation_id", "KeyType": "RANGE"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "event_id", "AttributeType": "S"},
            {"AttributeName": "reservation_id", "AttributeType": "S"},
        ],
    },
    config.USERS_TABLE: {
        "KeySchema": [
            {"AttributeName": "uid", "KeyType": "HASH"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "uid", "AttributeType": "S"},
        ],
    },
}


def create_tables(dynamodb=None):
    dynamodb = dynamodb or boto3.resource("dynamodb", region_name=config.AWS_REGION)

    for name, schema in TABLES.items():
        try:
            table = dynamodb.create_table(
                TableName=name,
                BillingMode="PAY_PER_REQUEST",  # On-demand pricing
                **schema,
            )
            logger.info("Creating %s table...", name)
            table.wait_until_exists()
            logger.info("%s table created", name)
        except dynamodb.meta.client.exceptions.ResourceInUseException:
            logger.info("%s table already exists", name)
    return dynamodb


if __name__ == "__main__":
    config.configure_logging()
    create_tables()
