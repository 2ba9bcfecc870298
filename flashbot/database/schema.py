"""PostgreSQL schema definition for the arbitrage engine"""


def get_schema_sql() -> str:
    """
    Returns the complete SQL schema for the arbitrage engine database.

    Tables:
    - venues: Exchanges and liquidity sources supplying quotes
    - trading_pairs: Base/quote symbol combinations tracked across venues
    - arbitrage_opportunities: Detected price discrepancies (retained for 1 hour)
    - transactions: Paper execution outcomes
    - bot_settings: Singleton bot configuration
    """
    return """
-- Venues table: Exchanges supplying price quotes
CREATE TABLE IF NOT EXISTS venues (
    id SERIAL PRIMARY KEY,
    name VARCHAR(100) NOT NULL UNIQUE,
    api_url VARCHAR(255) NOT NULL,
    is_active BOOLEAN NOT NULL DEFAULT TRUE
);

-- Trading pairs table: Symbols compared across venues
CREATE TABLE IF NOT EXISTS trading_pairs (
    id SERIAL PRIMARY KEY,
    base_symbol VARCHAR(20) NOT NULL,
    quote_symbol VARCHAR(20) NOT NULL,
    name VARCHAR(50) NOT NULL,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    CONSTRAINT trading_pairs_symbols_unique UNIQUE (base_symbol, quote_symbol)
);

-- Opportunities table: Price discrepancies between two venues
CREATE TABLE IF NOT EXISTS arbitrage_opportunities (
    id SERIAL PRIMARY KEY,
    trading_pair_id INTEGER NOT NULL,
    venue_a_id INTEGER NOT NULL,
    venue_b_id INTEGER NOT NULL,
    price_a DECIMAL(18, 8) NOT NULL,
    price_b DECIMAL(18, 8) NOT NULL,
    profit_margin DECIMAL(5, 2) NOT NULL,
    estimated_profit DECIMAL(18, 8) NOT NULL,
    gas_estimate DECIMAL(18, 8) NOT NULL,
    is_executable BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
    CONSTRAINT opportunities_pair_fk FOREIGN KEY (trading_pair_id)
        REFERENCES trading_pairs(id) ON DELETE CASCADE,
    CONSTRAINT opportunities_venue_a_fk FOREIGN KEY (venue_a_id)
        REFERENCES venues(id) ON DELETE CASCADE,
    CONSTRAINT opportunities_venue_b_fk FOREIGN KEY (venue_b_id)
        REFERENCES venues(id) ON DELETE CASCADE,
    CONSTRAINT opportunities_distinct_venues_check CHECK (venue_a_id <> venue_b_id),
    CONSTRAINT opportunities_prices_check CHECK (price_a > 0 AND price_b > 0),
    CONSTRAINT opportunities_margin_check CHECK (profit_margin >= 0)
);

-- Transactions table: Paper execution outcomes
-- opportunity_id has no foreign key: transactions outlive expired opportunities
CREATE TABLE IF NOT EXISTS transactions (
    id SERIAL PRIMARY KEY,
    opportunity_id INTEGER NOT NULL,
    status VARCHAR(10) NOT NULL,
    tx_hash VARCHAR(66),
    actual_profit DECIMAL(18, 8),
    gas_used DECIMAL(18, 8),
    executed_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
    CONSTRAINT transactions_status_check CHECK (
        status IN ('pending', 'success', 'failed')
    )
);

-- Bot settings table: Exactly one row
CREATE TABLE IF NOT EXISTS bot_settings (
    id SERIAL PRIMARY KEY,
    min_profit_threshold DECIMAL(5, 2) NOT NULL DEFAULT 1.5,
    max_gas_price DECIMAL(10, 2) NOT NULL DEFAULT 50,
    trade_amount DECIMAL(18, 8) NOT NULL DEFAULT 1000,
    slippage_tolerance DECIMAL(5, 2) NOT NULL DEFAULT 0.5,
    auto_execute_enabled BOOLEAN NOT NULL DEFAULT TRUE,
    alerts_enabled BOOLEAN NOT NULL DEFAULT TRUE,
    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
);

-- Indexes for high-frequency queries
CREATE INDEX IF NOT EXISTS idx_opportunities_created_at
    ON arbitrage_opportunities(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_transactions_executed_at
    ON transactions(executed_at DESC);
CREATE INDEX IF NOT EXISTS idx_transactions_opportunity
    ON transactions(opportunity_id);

-- Comments for documentation
COMMENT ON TABLE venues IS 'Exchanges and liquidity sources supplying price quotes';
COMMENT ON TABLE arbitrage_opportunities IS 'Cross-venue price discrepancies above the detection filter';
COMMENT ON TABLE transactions IS 'Paper execution outcomes, immutable once written';
COMMENT ON TABLE bot_settings IS 'Singleton bot configuration';

COMMENT ON COLUMN arbitrage_opportunities.profit_margin IS 'abs(price_a - price_b) / min(price_a, price_b) * 100';
COMMENT ON COLUMN arbitrage_opportunities.gas_estimate IS 'Estimated execution cost from the cost model';
COMMENT ON COLUMN transactions.gas_used IS 'Execution cost, recorded for failed executions too';
"""
