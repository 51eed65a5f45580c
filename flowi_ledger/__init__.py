# ==============================================================================
# FLOWI - Libro contable en dos monedas (USD / VES)
# ==============================================================================
# Tasa de cambio, cuentas por cobrar/pagar y analítica de ventas para un
# negocio pequeño. Los datos viven en archivos JSON locales.
# ==============================================================================

__version__ = '1.0.0'
