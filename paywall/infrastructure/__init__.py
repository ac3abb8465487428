"""Infrastructure layer module.

Contains configuration, logging, the facilitator client, the x402 verifier
and the voucher storage backends.
"""
