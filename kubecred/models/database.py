"""
Database models and connection management for stored secrets.
"""

import os
from sqlalchemy import create_engine, Column, Integer, String, Text, DateTime, UniqueConstraint
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.sql import func

Base = declarative_base()


class SecretRecord(Base):
    """A stored secret. Labels, owner references and data are JSON text."""
    
    __tablename__ = 'secrets'
    __table_args__ = (
        UniqueConstraint('namespace', 'name', name='uq_secrets_namespace_name'),
    )
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    namespace = Column(String(253), nullable=False, index=True)
    name = Column(String(253), nullable=False)
    labels = Column(Text, nullable=False, default='{}')
    owner_references = Column(Text, nullable=False, default='[]')
    # Values are base64 encoded
    data = Column(Text, nullable=False, default='{}')
    resource_version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<SecretRecord(id={self.id}, namespace='{self.namespace}', name='{self.name}', resource_version={self.resource_version})>"


class DatabaseManager:
    """Database connection and initialization manager."""
    
    def __init__(self, database_url: str = None):
        """
        Initialize database manager.
        
        Args:
            database_url: Database connection URL. If None, uses SQLite with default path.
        """
        if database_url is None:
            data_dir = os.path.join(os.getcwd(), 'data')
            os.makedirs(data_dir, exist_ok=True)
            database_url = f"sqlite:///{os.path.join(data_dir, 'kubecred.db')}"
        
        self.database_url = database_url
        self.engine = create_engine(database_url, echo=False)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
    
    def create_tables(self):
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)
    
    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()


def get_database_manager(database_url: str = None) -> DatabaseManager:
    """
    Factory function to get a database manager instance.
    
    Args:
        database_url: Database connection URL
        
    Returns:
        DatabaseManager instance
    """
    return DatabaseManager(database_url)
