#!/usr/bin/env python3
"""Development server runner"""
import os
import atexit
from datpatch import create_app
from datpatch.scheduler import init_scheduler, start_scheduler, stop_scheduler

if __name__ == '__main__':
    # Use development config for local testing
    app = create_app('development')

    # Scheduled runs need BACKUP_SOURCE and BACKUP_DESTINATION
    if app.config.get('BACKUP_SOURCE') and app.config.get('BACKUP_DESTINATION'):
        init_scheduler(app)
        start_scheduler()
        atexit.register(stop_scheduler)

    # Run development server (the reloader would start a second scheduler)
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=True, use_reloader=False)
