"""
Helper functions specifically for TypeScript definition (.d.ts) generation
Contains functions used in the d_ts.yaml module template
"""

from datetime import datetime, timezone

def format_utc_timestamp(generated_at=None):
    """Format the generation time for the auto-generated banner, always in UTC"""
    if generated_at is None:
        generated_at = datetime.now(timezone.utc)
    elif generated_at.tzinfo is None:
        # naive datetimes are taken to be UTC already
        generated_at = generated_at.replace(tzinfo=timezone.utc)

    return generated_at.astimezone(timezone.utc).strftime('%Y-%m-%d %H:%M:%S') + ' UTC'

def join_interfaces(interfaces):
    """Concatenate rendered interface bodies in generation order"""
    return ''.join(interface.code for interface in interfaces)

def module_file_name(module_name, suffix='.generated.d.ts'):
    """Build a file name for a module, replacing characters unsafe in paths"""
    safe = ''.join(c if c.isalnum() or c in '._-' else '_' for c in module_name)
    return safe + suffix
