"""
Secret store backed by the application database.
"""

import base64
import json
import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, AlreadyExistsError, ConflictError
from ..models.database import SecretRecord, DatabaseManager
from ..models.secret import Secret, ObjectKey, OwnerReference, Purpose, secret_name


class SecretService:
    """
    Create, read and update secrets.
    
    update() is a compare-and-swap when the given secret carries a
    resource_version: it only succeeds if the stored version still matches.
    """
    
    def __init__(self, db_manager: DatabaseManager):
        """
        Initialize the secret service.
        
        Args:
            db_manager: Database manager instance
        """
        self.db_manager = db_manager
        self.logger = logging.getLogger(__name__)
    
    def get(self, key: ObjectKey) -> Secret:
        """
        Get a secret by namespace and name.
        
        Raises:
            NotFoundError: If no such secret exists
        """
        session = self.db_manager.get_session()
        try:
            record = self._find(session, key)
            if record is None:
                raise NotFoundError(f"secret {key} not found")
            return self._to_secret(record)
        finally:
            session.close()
    
    def get_cluster_secret(self, cluster_key: ObjectKey, purpose: Purpose) -> Secret:
        """Get the secret holding ``purpose`` for the cluster at ``cluster_key``."""
        return self.get(ObjectKey(cluster_key.namespace, secret_name(cluster_key.name, purpose)))
    
    def create(self, secret: Secret) -> Secret:
        """
        Store a new secret.
        
        Raises:
            AlreadyExistsError: If a secret with the same namespace and name exists
        """
        session = self.db_manager.get_session()
        try:
            if self._find(session, secret.key) is not None:
                raise AlreadyExistsError(f"secret {secret.key} already exists")
            
            record = SecretRecord(
                namespace=secret.namespace,
                name=secret.name,
                labels=json.dumps(secret.labels, sort_keys=True),
                owner_references=json.dumps([ref.to_dict() for ref in secret.owner_references]),
                data=self._encode_data(secret.data),
                resource_version=1
            )
            session.add(record)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise AlreadyExistsError(f"secret {secret.key} already exists") from e
            
            session.refresh(record)
            secret.resource_version = record.resource_version
            self.logger.info(f"Created secret {secret.key}")
            return secret
        finally:
            session.close()
    
    def update(self, secret: Secret) -> Secret:
        """
        Replace a stored secret's labels, owner references and data.
        
        Raises:
            NotFoundError: If the secret does not exist
            ConflictError: If secret.resource_version is stale
        """
        session = self.db_manager.get_session()
        try:
            record = self._find(session, secret.key)
            if record is None:
                raise NotFoundError(f"secret {secret.key} not found")
            
            current_version = record.resource_version
            if secret.resource_version is not None and secret.resource_version != current_version:
                raise ConflictError(
                    f"secret {secret.key} has version {current_version}, "
                    f"update was based on version {secret.resource_version}"
                )
            
            # Conditional on the version read above
            updated = session.query(SecretRecord).filter(
                SecretRecord.id == record.id,
                SecretRecord.resource_version == current_version
            ).update({
                SecretRecord.labels: json.dumps(secret.labels, sort_keys=True),
                SecretRecord.owner_references: json.dumps([ref.to_dict() for ref in secret.owner_references]),
                SecretRecord.data: self._encode_data(secret.data),
                SecretRecord.resource_version: current_version + 1
            }, synchronize_session=False)
            
            if updated != 1:
                session.rollback()
                raise ConflictError(f"secret {secret.key} was modified concurrently")
            
            session.commit()
            secret.resource_version = current_version + 1
            self.logger.info(f"Updated secret {secret.key} to version {secret.resource_version}")
            return secret
        finally:
            session.close()
    
    def delete(self, key: ObjectKey) -> bool:
        """
        Delete a secret.
        
        Returns:
            True if a secret was deleted, False if none existed
        """
        session = self.db_manager.get_session()
        try:
            record = self._find(session, key)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            self.logger.info(f"Deleted secret {key}")
            return True
        finally:
            session.close()
    
    def list_secrets(self, namespace: Optional[str] = None,
                     labels: Optional[Dict[str, str]] = None) -> List[Secret]:
        """
        List secrets, optionally filtered by namespace and matching labels.
        
        Args:
            namespace: Only return secrets in this namespace
            labels: Only return secrets carrying all of these labels
            
        Returns:
            Secrets ordered by namespace and name
        """
        session = self.db_manager.get_session()
        try:
            query = session.query(SecretRecord)
            if namespace is not None:
                query = query.filter(SecretRecord.namespace == namespace)
            records = query.order_by(SecretRecord.namespace, SecretRecord.name).all()
            secrets = [self._to_secret(record) for record in records]
        finally:
            session.close()
        
        if labels:
            secrets = [
                s for s in secrets
                if all(s.labels.get(k) == v for k, v in labels.items())
            ]
        return secrets
    
    def _find(self, session, key: ObjectKey) -> Optional[SecretRecord]:
        return session.query(SecretRecord).filter(
            SecretRecord.namespace == key.namespace,
            SecretRecord.name == key.name
        ).first()
    
    def _encode_data(self, data: Dict[str, bytes]) -> str:
        return json.dumps(
            {k: base64.b64encode(v).decode('ascii') for k, v in data.items()},
            sort_keys=True
        )
    
    def _to_secret(self, record: SecretRecord) -> Secret:
        """Create a detached Secret from a database record."""
        data = json.loads(record.data or '{}')
        return Secret(
            name=record.name,
            namespace=record.namespace,
            data={k: base64.b64decode(v) for k, v in data.items()},
            labels=json.loads(record.labels or '{}'),
            owner_references=[
                OwnerReference.from_dict(ref) for ref in json.loads(record.owner_references or '[]')
            ],
            resource_version=record.resource_version
        )
