"""Initial schema: catalog, topology and measurement hypertable

Revision ID: 001_initial
Revises: 
Create Date: 2024-01-15 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables and seed the measurement catalog."""

    # Create schema
    op.execute("CREATE SCHEMA IF NOT EXISTS opws")

    # Enable TimescaleDB extension
    op.execute("CREATE EXTENSION IF NOT EXISTS timescaledb CASCADE")

    # Create measurement_kinds table
    op.create_table(
        'measurement_kinds',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('key', sa.String(length=50), nullable=False),
        sa.Column('label', sa.String(length=100), nullable=True),
        sa.Column('unit', sa.String(length=20), nullable=True),
        sa.Column('aggregation', sa.String(length=10), nullable=False, server_default='AVERAGE'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key'),
        sa.CheckConstraint("aggregation IN ('AVERAGE', 'SUM')", name='ck_measurement_kinds_aggregation'),
        schema='opws'
    )

    # Create stations table
    op.create_table(
        'stations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('elevation_m', sa.Float(), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        schema='opws'
    )
    op.create_index('idx_stations_coords', 'stations', ['latitude', 'longitude'], schema='opws')

    # Create devices table
    op.create_table(
        'devices',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('identifier', sa.String(length=64), nullable=False),
        sa.Column('station_id', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('description', sa.String(length=200), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['station_id'], ['opws.stations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('identifier'),
        schema='opws'
    )
    op.create_index('idx_devices_station', 'devices', ['station_id'], schema='opws')

    # Create field_mappings table
    op.create_table(
        'field_mappings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('device_id', sa.Integer(), nullable=False),
        sa.Column('kind_id', sa.Integer(), nullable=False),
        sa.Column('payload_key', sa.String(length=64), nullable=False),
        sa.Column('scale', sa.Float(), nullable=False, server_default=sa.text('1.0')),
        sa.Column('offset', sa.Float(), nullable=False, server_default=sa.text('0.0')),
        sa.ForeignKeyConstraint(['device_id'], ['opws.devices.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['kind_id'], ['opws.measurement_kinds.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('device_id', 'kind_id', name='uq_field_mappings_device_kind'),
        sa.UniqueConstraint('device_id', 'payload_key', name='uq_field_mappings_device_payload_key'),
        schema='opws'
    )

    # Create measurements table (will be converted to hypertable)
    op.create_table(
        'measurements',
        sa.Column('station_id', sa.Integer(), nullable=False),
        sa.Column('kind_id', sa.Integer(), nullable=False),
        sa.Column('time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('value', sa.Double(), nullable=False),
        sa.Column('raw_payload', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.ForeignKeyConstraint(['station_id'], ['opws.stations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['kind_id'], ['opws.measurement_kinds.id'], ),
        # Uniqueness of one reading per station, kind and instant
        sa.PrimaryKeyConstraint('station_id', 'kind_id', 'time'),
        schema='opws'
    )
    op.create_index('idx_measurements_station_time', 'measurements', ['station_id', 'time'], schema='opws')

    # Convert measurements to TimescaleDB hypertable
    op.execute("""
        SELECT create_hypertable(
            'opws.measurements',
            'time',
            if_not_exists => TRUE,
            chunk_time_interval => INTERVAL '7 days'
        )
    """)

    # Enable compression on measurements hypertable
    op.execute("""
        ALTER TABLE opws.measurements SET (
            timescaledb.compress,
            timescaledb.compress_segmentby = 'station_id',
            timescaledb.compress_orderby = 'time DESC, kind_id'
        )
    """)

    # Insert lookup data - Measurement kinds
    op.execute("""
        INSERT INTO opws.measurement_kinds (key, label, unit, aggregation, description) VALUES
        ('air_temp_c', 'Air temperature', '°C', 'AVERAGE', 'Air temperature measured by the station sensor'),
        ('air_humidity_pct', 'Relative humidity', '%', 'AVERAGE', 'Relative air humidity'),
        ('soil_moisture_pct', 'Soil moisture', '%', 'AVERAGE', 'Approximate volumetric water content of the soil'),
        ('soil_temp_c', 'Soil temperature', '°C', 'AVERAGE', 'Soil temperature at sensor depth'),
        ('luminosity_lx', 'Luminosity', 'lx', 'AVERAGE', 'Incident illuminance'),
        ('rainfall_mm', 'Rainfall', 'mm', 'SUM', 'Rain accumulated over the reading interval')
        ON CONFLICT (key) DO NOTHING
    """)


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index('idx_measurements_station_time', table_name='measurements', schema='opws')
    op.drop_table('measurements', schema='opws')

    op.drop_table('field_mappings', schema='opws')

    op.drop_index('idx_devices_station', table_name='devices', schema='opws')
    op.drop_table('devices', schema='opws')

    op.drop_index('idx_stations_coords', table_name='stations', schema='opws')
    op.drop_table('stations', schema='opws')

    op.drop_table('measurement_kinds', schema='opws')
