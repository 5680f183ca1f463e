from . import admin, auth, categories, messages, orders, products, reviews, users

BLUEPRINTS = (
    ('/auth', auth),
    ('/users', users),
    ('/products', products),
    ('/categories', categories),
    ('/reviews', reviews),
    ('/orders', orders),
    ('/messages', messages),
    ('/admin', admin),
)


def register_blueprints(app, store, guard, prefix='/api'):
    for path, module in BLUEPRINTS:
        app.register_blueprint(module.create_blueprint(store, guard), url_prefix=prefix + path)
