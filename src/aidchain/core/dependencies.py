import boto3
import logging
from functools import lru_cache

from aidchain.core.config import get_settings
from aidchain.data_access.dynamodb import DynamoLedgerStore
from aidchain.data_access.memory import InMemoryLedgerStore
from aidchain.services.ledger_service import LedgerService, LedgerStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_boto_session() -> boto3.Session:
    settings = get_settings()
    return boto3.Session(
        region_name=settings.AWS_REGION,
        profile_name=settings.AWS_PROFILE
    )

@lru_cache()
def get_ledger_store() -> LedgerStore:
    settings = get_settings()
    if settings.LEDGER_BACKEND == "dynamodb":
        dynamo_resource = get_boto_session().resource('dynamodb')
        table = dynamo_resource.Table(settings.DYNAMODB_TABLE_NAME)
        logger.info(f"Using DynamoDB ledger table {settings.DYNAMODB_TABLE_NAME}")
        return DynamoLedgerStore(table=table)

    logger.info("Using in-memory ledger store")
    return InMemoryLedgerStore()

@lru_cache()
def get_ledger_service() -> LedgerService:
    return LedgerService(
        store=get_ledger_store(),
        retry_attempts=get_settings().SAVE_RETRY_ATTEMPTS
    )
