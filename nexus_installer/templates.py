# nexus_installer/templates.py
# -*- coding: utf-8 -*-
"""
Text of the files the installer writes: the Nginx site, Supervisor program
blocks and the scheduler line. Rendering is pure, so identical input always
produces byte-identical output and the site file can be blindly overwritten.
"""

from typing import Optional

from nexus_installer import config

NGINX_SECURITY_HEADERS = """\
    add_header X-Frame-Options 'SAMEORIGIN';
    add_header X-Content-Type-Options 'nosniff';
    add_header Referrer-Policy 'strict-origin-when-cross-origin';
    add_header X-XSS-Protection '1; mode=block';
"""


def _nginx_app_body(app_path: str, php_fpm_socket: str) -> str:
    # Nginx braces are doubled; $variables pass through the f-string as-is.
    return f"""\
    root {app_path}/public;
    index index.php index.html index.htm;

    location / {{ try_files $uri $uri/ /index.php?$query_string; }}

    location ~ \\.php$ {{
        fastcgi_split_path_info ^(.+\\.php)(/.+)$;
        fastcgi_pass unix:{php_fpm_socket};
        fastcgi_index index.php;
        include fastcgi_params;
        fastcgi_param SCRIPT_FILENAME $realpath_root$fastcgi_script_name;
        fastcgi_param PATH_INFO $fastcgi_path_info;
    }}

    location ^~ /.well-known/acme-challenge/ {{ allow all; }}
    location ~ /\\. {{ deny all; }}

{NGINX_SECURITY_HEADERS}
    client_max_body_size 64M;
    gzip on;
    gzip_types text/plain text/css application/json application/javascript text/xml application/xml application/xml+rss text/javascript;
    gzip_vary on;
"""


def render_nginx_site(
    domain: str,
    app_path: str,
    php_fpm_socket: str,
    certificate_dir: Optional[str] = None,
    cache_dir: str = config.NGINX_CACHE_DIR,
) -> str:
    """
    Render the Nginx server blocks for the application.

    With `certificate_dir` (the Let's Encrypt live directory of the domain)
    the site serves HTTPS and redirects plain HTTP. Without it the site is
    HTTP only, so `nginx -t` passes before a certificate has been issued.
    """
    header = (
        f"# Managed by the Nexus installer (v{config.SCRIPT_VERSION}). Overwritten on every run.\n"
        f"fastcgi_cache_path {cache_dir} levels=1:2 keys_zone=nexus:10m inactive=60m;\n\n"
    )
    body = _nginx_app_body(app_path, php_fpm_socket)

    if not certificate_dir:
        return header + (
            "server {\n"
            "    listen 80;\n"
            "    listen [::]:80;\n"
            f"    server_name {domain};\n\n"
            f"{body}"
            "}\n"
        )

    return header + (
        "server {\n"
        "    listen 443 ssl http2;\n"
        "    listen [::]:443 ssl http2;\n"
        f"    server_name {domain};\n\n"
        f"    ssl_certificate {certificate_dir}/fullchain.pem;\n"
        f"    ssl_certificate_key {certificate_dir}/privkey.pem;\n"
        "    ssl_protocols TLSv1.2 TLSv1.3;\n"
        "    ssl_session_cache shared:SSL:10m;\n"
        "    ssl_session_timeout 1d;\n\n"
        f"{body}"
        "}\n"
        "server {\n"
        "    listen 80;\n"
        "    listen [::]:80;\n"
        f"    server_name {domain};\n"
        "    return 301 https://$host$request_uri;\n"
        "}\n"
    )


def render_queue_worker_program(
    program_name: str,
    app_path: str,
    web_user: str,
    queue: str,
    numprocs: int,
    log_name: str,
) -> str:
    return (
        f"[program:{program_name}]\n"
        "process_name=%(program_name)s_%(process_num)02d\n"
        f"directory={app_path}\n"
        f"command={config.PHP_BIN_PATH} artisan queue:work --queue={queue} --sleep=3 --tries=3 --max-time=3600\n"
        "autostart=true\n"
        "autorestart=true\n"
        "stopasgroup=true\n"
        "killasgroup=true\n"
        f"numprocs={numprocs}\n"
        f"user={web_user}\n"
        "redirect_stderr=true\n"
        f"stdout_logfile={app_path}/storage/logs/{log_name}\n"
        "stopwaitsecs=10\n"
    )


def render_subs_program(subs_path: str, web_user: str, log_dir: str) -> str:
    """Supervisor block for the subs node process (entry point src/index.js)."""
    return (
        f"[program:{config.SUPERVISOR_PROGRAM_SUBS}]\n"
        f"directory={subs_path}/src\n"
        f"command={config.NODE_BIN_PATH} index.js\n"
        "autostart=true\n"
        "autorestart=true\n"
        "stopasgroup=true\n"
        "killasgroup=true\n"
        f"user={web_user}\n"
        'environment=NODE_ENV="production",PATH="/usr/bin"\n'
        f"stdout_logfile={log_dir}/subs.log\n"
        f"stderr_logfile={log_dir}/subs-error.log\n"
        "numprocs=1\n"
        "stopwaitsecs=10\n"
    )


def render_scheduler_line(app_path: str, web_user: str) -> str:
    """The /etc/crontab entry running the Laravel scheduler every minute."""
    return (
        f"* * * * * root su -s /bin/bash {web_user} -c "
        f'"{config.PHP_BIN_PATH} {app_path}/artisan schedule:run >> {app_path}/storage/logs/cron.log 2>&1"'
    )
