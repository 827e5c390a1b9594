"""HTTP surface: app factory, request gate and routers."""
