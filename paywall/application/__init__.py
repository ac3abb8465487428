"""Application layer module.

Contains the services that gate orders behind payment and manage vouchers.
"""
