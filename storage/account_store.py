"""DynamoDB-backed store for connected calendar accounts."""
import json
import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from processor.models import Account

logger = logging.getLogger(__name__)


class DynamoDBAccountStore:
    """Account records keyed by username."""

    def __init__(self, table_name: str):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBAccountStore for table: {table_name}")

    def create(self, **fields: Any) -> Account:
        """
        Create and save a new account.

        Args:
            **fields: Account attributes; username is required

        Returns:
            The saved Account
        """
        account = Account(**fields)
        self.save(account)
        return account

    def get(self, username: str) -> Optional[Account]:
        """
        Load an account.

        Args:
            username: Account email address

        Returns:
            Account or None if it does not exist
        """
        try:
            response = self.table.get_item(Key={'username': username})
        except ClientError as e:
            logger.error(f"Error reading account {username}: {e}")
            raise

        item = response.get('Item')
        if not item:
            return None
        return self._item_to_account(item)

    def list_accounts(self) -> List[Account]:
        """Return every stored account."""
        try:
            response = self.table.scan()
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))
        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise

        accounts = []
        for item in items:
            account = self._item_to_account(item)
            if account:
                accounts.append(account)
        return accounts

    def save(self, account: Account) -> None:
        """Write the account record."""
        try:
            self.table.put_item(Item=self._account_to_item(account))
        except ClientError as e:
            logger.error(f"Error saving account {account.username}: {e}")
            raise
        logger.info(f"Saved account {account.username}")

    def _item_to_account(self, item: Dict[str, Any]) -> Optional[Account]:
        """
        Convert DynamoDB item to Account object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Account object or None if conversion fails
        """
        try:
            return Account(
                username=item['username'],
                name=item.get('name', 'Office 365'),
                strategy=item.get('strategy', 'office'),
                oauth=json.loads(item.get('oauth') or '{}'),
                delta_token=item.get('delta_token')
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to convert item to Account: {e}")
            return None

    def _account_to_item(self, account: Account) -> Dict[str, Any]:
        """
        Convert Account object to DynamoDB item.

        The token bundle is stored as a JSON string so numeric fields such
        as expires_in do not need Decimal conversion.
        """
        item = {
            'username': account.username,
            'name': account.name,
            'strategy': account.strategy,
            'oauth': json.dumps(account.oauth)
        }

        if account.delta_token:
            item['delta_token'] = account.delta_token

        return item
