"""Authentication and host-routing gateway for ClassPoint school subdomains."""
