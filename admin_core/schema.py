SCHEMA_SQL = r"""
-- Stores (physical shops and dark stores)
CREATE TABLE IF NOT EXISTS stores (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  is_active INTEGER NOT NULL DEFAULT 1
);

-- Global product catalog
CREATE TABLE IF NOT EXISTS products (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  category TEXT,
  is_active INTEGER NOT NULL DEFAULT 1
);

-- Product assigned to a store (pricing lives on the variants)
CREATE TABLE IF NOT EXISTS store_products (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  store_id INTEGER NOT NULL,
  product_id INTEGER NOT NULL,
  is_active INTEGER NOT NULL DEFAULT 1,
  is_featured INTEGER NOT NULL DEFAULT 0,
  UNIQUE (store_id, product_id),
  FOREIGN KEY (store_id) REFERENCES stores(id),
  FOREIGN KEY (product_id) REFERENCES products(id)
);

-- Sellable variants; discount is never stored, it is derived from mrp/selling_price
CREATE TABLE IF NOT EXISTS store_product_variants (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  store_product_id INTEGER NOT NULL,
  sku TEXT NOT NULL,
  size REAL NOT NULL,
  unit TEXT NOT NULL,                    -- kg / g / ml / liter / piece / pack
  mrp REAL NOT NULL DEFAULT 0,
  selling_price REAL NOT NULL DEFAULT 0,
  is_available INTEGER NOT NULL DEFAULT 1,
  UNIQUE (store_product_id, sku),
  FOREIGN KEY (store_product_id) REFERENCES store_products(id) ON DELETE CASCADE
);

-- Purchase batches (GRN). One receipt = one batch.
CREATE TABLE IF NOT EXISTS inventory_batches (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  batch_number TEXT NOT NULL UNIQUE,
  store_id INTEGER NOT NULL,
  product_id INTEGER NOT NULL,

  uses_shared_stock INTEGER NOT NULL DEFAULT 0,
  variant_sku TEXT,                      -- set when uses_shared_stock = 0
  base_unit TEXT,                        -- set when uses_shared_stock = 1

  initial_quantity REAL NOT NULL,
  available_quantity REAL NOT NULL,
  cost_price REAL NOT NULL,              -- cost per base unit

  supplier TEXT,
  purchase_date TEXT,                    -- ISO date
  expiry_date TEXT,                      -- ISO date, optional
  status TEXT NOT NULL DEFAULT 'active', -- active / expired / depleted
  notes TEXT,
  created_at TEXT NOT NULL,

  CHECK (available_quantity <= initial_quantity),
  FOREIGN KEY (store_id) REFERENCES stores(id),
  FOREIGN KEY (product_id) REFERENCES products(id)
);

-- Delivery partners
CREATE TABLE IF NOT EXISTS delivery_partners (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  phone TEXT,
  is_active INTEGER NOT NULL DEFAULT 1
);

-- Customer orders
CREATE TABLE IF NOT EXISTS orders (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  order_number TEXT NOT NULL UNIQUE,
  store_id INTEGER,
  customer TEXT,
  status TEXT NOT NULL DEFAULT 'pending',
  payment_method TEXT NOT NULL DEFAULT 'cod',       -- cod / online / wallet
  payment_status TEXT NOT NULL DEFAULT 'pending',   -- pending / paid / failed / refunded
  delivery_partner_id INTEGER,
  total_amount REAL NOT NULL DEFAULT 0,
  cancel_reason TEXT,
  payment_notes TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  FOREIGN KEY (store_id) REFERENCES stores(id),
  FOREIGN KEY (delivery_partner_id) REFERENCES delivery_partners(id)
);

-- Audit trail of status changes
CREATE TABLE IF NOT EXISTS order_status_history (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  order_id INTEGER NOT NULL,
  from_status TEXT,
  to_status TEXT NOT NULL,
  reason TEXT,
  ts TEXT NOT NULL,
  FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE
);
"""
