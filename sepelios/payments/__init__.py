"""
Module 'payments' (feature-first): checkout Mercado Pago, réconciliation webhook, client HTTP du processeur.
"""
