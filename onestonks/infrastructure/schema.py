"""Database schema for the onestonks Postgres store."""

SCHEMA_SQL = """
CREATE SCHEMA IF NOT EXISTS onestonks;

CREATE TABLE IF NOT EXISTS onestonks.users (
    id uuid PRIMARY KEY,
    username text NOT NULL,
    coins numeric NOT NULL CHECK (coins >= 0),
    created_at timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS onestonks.assets (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    symbol text NOT NULL UNIQUE,
    name text NOT NULL,
    current_price numeric NOT NULL CHECK (current_price > 0),
    image_url text
);

CREATE TABLE IF NOT EXISTS onestonks.transactions (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id uuid NOT NULL REFERENCES onestonks.users (id),
    asset_id uuid NOT NULL REFERENCES onestonks.assets (id),
    quantity integer NOT NULL CHECK (quantity > 0),
    price_at_transaction numeric NOT NULL,
    total numeric NOT NULL,
    type text NOT NULL CHECK (type IN ('buy', 'sell')),
    created_at timestamptz NOT NULL
);

CREATE INDEX IF NOT EXISTS transactions_user_asset_idx
    ON onestonks.transactions (user_id, asset_id);

CREATE TABLE IF NOT EXISTS onestonks.asset_prices (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    asset_id uuid NOT NULL REFERENCES onestonks.assets (id),
    price numeric NOT NULL,
    recorded_at timestamptz NOT NULL
);

CREATE INDEX IF NOT EXISTS asset_prices_asset_recorded_idx
    ON onestonks.asset_prices (asset_id, recorded_at);

CREATE OR REPLACE VIEW onestonks.v_asset_volume AS
SELECT
    asset_id,
    SUM(CASE WHEN type = 'buy' THEN quantity ELSE -quantity END) AS net_volume
FROM onestonks.transactions
GROUP BY asset_id;
"""
