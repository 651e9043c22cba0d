import logging
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from datetime import datetime
from typing import Any, Callable

from aidchain.core.exceptions import StaleLedgerState, StoreThrottled
from aidchain.models.donation import Donation, DonationStats, LedgerState

logger = logging.getLogger(__name__)

LEDGER_PK = "LEDGER"
STATS_SK = "STATS"
DONATION_PREFIX = "DONATION#"

THROTTLING_ERROR_CODES = {
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
}
# Cancellation reason codes inside a TransactionCanceledException
CONFLICT_REASONS = {"ConditionalCheckFailed", "TransactionConflict"}
THROTTLING_REASONS = {"ThrottlingError", "ProvisionedThroughputExceeded"}


def donation_sk(index: int) -> str:
    return f"{DONATION_PREFIX}{index:010d}"


def _donation_to_item(index: int, donation: Donation) -> dict:
    # Amounts are strings: DynamoDB numbers stop at 38 digits.
    return {
        "PK": LEDGER_PK,
        "SK": donation_sk(index),
        "index": index,
        "donor": donation.donor,
        "amount": str(donation.amount),
        "category": donation.category,
        "region": donation.region,
        "organization": donation.organization,
        "timestamp": donation.timestamp.isoformat(),
        "status": donation.status,
        "delivery_nft_id": donation.delivery_nft_id,
    }


def _donation_from_item(item: dict[str, Any]) -> Donation:
    return Donation(
        donor=item["donor"],
        amount=int(item["amount"]),
        category=item["category"],
        region=item["region"],
        organization=item["organization"],
        timestamp=datetime.fromisoformat(item["timestamp"]),
        status=item["status"],
        delivery_nft_id=item.get("delivery_nft_id"),
    )


def _stats_to_item(stats: DonationStats) -> dict:
    return {
        "total_donations": stats.total_donations,
        "total_amount": str(stats.total_amount),
        "category_stats": dict(stats.category_stats),
        "region_stats": dict(stats.region_stats),
    }


def _stats_from_item(item: dict[str, Any]) -> DonationStats:
    return DonationStats(
        total_donations=int(item.get("total_donations", 0)),
        total_amount=int(item.get("total_amount", "0")),
        category_stats={k: int(v) for k, v in item.get("category_stats", {}).items()},
        region_stats={k: int(v) for k, v in item.get("region_stats", {}).items()},
    )


class DynamoLedgerStore:
    """
    One item per donation (`DONATION#<index>`) next to a `STATS` item that
    carries the aggregate counters and the ledger `version`. Every write is a
    transaction that touches the donation item and is conditioned on the
    version, so the ledger and its stats always move together.
    """
    def __init__(self, table):
        self.table = table
        self.client = table.meta.client
        self.serializer = TypeSerializer()

    def _serialize(self, values: dict) -> dict:
        return {k: self.serializer.serialize(v) for k, v in values.items()}

    def _call(self, operation: Callable[..., dict], **kwargs) -> dict:
        try:
            return operation(**kwargs)
        except ClientError as e:
            code = e.response['Error']['Code']
            if code in THROTTLING_ERROR_CODES:
                logger.warning(f"Ledger table throttled: {code}")
                raise StoreThrottled(code) from e
            logger.error(f"Error reading ledger table: {e}")
            raise

    def load_stats(self) -> tuple[DonationStats, int]:
        response = self._call(
            self.table.get_item,
            Key={"PK": LEDGER_PK, "SK": STATS_SK},
            ConsistentRead=True
        )
        item = response.get("Item")
        if not item:
            return DonationStats(), 0
        return _stats_from_item(item["stats"]), int(item["version"])

    def get_donation(self, index: int) -> Donation | None:
        response = self._call(
            self.table.get_item,
            Key={"PK": LEDGER_PK, "SK": donation_sk(index)},
            ConsistentRead=True
        )
        item = response.get("Item")
        return _donation_from_item(item) if item else None

    def load(self) -> LedgerState:
        stats, version = self.load_stats()

        donations = []
        query = {
            "KeyConditionExpression": Key("PK").eq(LEDGER_PK) & Key("SK").begins_with(DONATION_PREFIX),
            "ConsistentRead": True,
        }
        while True:
            response = self._call(self.table.query, **query)
            donations.extend(_donation_from_item(item) for item in response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            query["ExclusiveStartKey"] = last_key

        # Appends that landed after the stats read belong to a later version.
        return LedgerState(
            donations=donations[:stats.total_donations],
            stats=stats,
            version=version,
        )

    def _version_condition(self, expected_version: int) -> dict:
        if expected_version == 0:
            return {"ConditionExpression": "attribute_not_exists(SK)"}
        return {
            "ConditionExpression": "#version = :expected",
            "ExpressionAttributeNames": {"#version": "version"},
            "ExpressionAttributeValues": self._serialize({":expected": expected_version}),
        }

    def _transact(self, items: list[dict], expected_version: int) -> int:
        try:
            self.client.transact_write_items(TransactItems=items)
        except ClientError as e:
            code = e.response['Error']['Code']
            reasons = {r.get("Code") for r in e.response.get("CancellationReasons", [])}
            if code == "TransactionCanceledException" and reasons & CONFLICT_REASONS:
                logger.info(f"Ledger moved past version {expected_version}.")
                raise StaleLedgerState(expected_version) from e
            if code in THROTTLING_ERROR_CODES or reasons & THROTTLING_REASONS:
                logger.warning(f"Ledger write throttled: {code} {sorted(r for r in reasons if r)}")
                raise StoreThrottled(code) from e
            logger.error(f"Error writing ledger transaction: {e}")
            raise
        return expected_version + 1

    def append(self, index: int, donation: Donation, stats: DonationStats, expected_version: int) -> int:
        stats_item = {
            "PK": LEDGER_PK,
            "SK": STATS_SK,
            "stats": _stats_to_item(stats),
            "version": expected_version + 1,
        }
        return self._transact([
            {
                "Put": {
                    "TableName": self.table.name,
                    "Item": self._serialize(_donation_to_item(index, donation)),
                    "ConditionExpression": "attribute_not_exists(SK)",
                }
            },
            {
                "Put": {
                    "TableName": self.table.name,
                    "Item": self._serialize(stats_item),
                    **self._version_condition(expected_version),
                }
            },
        ], expected_version)

    def replace(self, index: int, donation: Donation, expected_version: int) -> int:
        return self._transact([
            {
                "Put": {
                    "TableName": self.table.name,
                    "Item": self._serialize(_donation_to_item(index, donation)),
                    "ConditionExpression": "attribute_exists(SK)",
                }
            },
            {
                "Update": {
                    "TableName": self.table.name,
                    "Key": self._serialize({"PK": LEDGER_PK, "SK": STATS_SK}),
                    "UpdateExpression": "SET #version = :next",
                    "ConditionExpression": "#version = :expected",
                    "ExpressionAttributeNames": {"#version": "version"},
                    "ExpressionAttributeValues": self._serialize({
                        ":expected": expected_version,
                        ":next": expected_version + 1,
                    }),
                }
            },
        ], expected_version)
