"""HTTP middleware: request logging, security headers and canonical redirects."""
